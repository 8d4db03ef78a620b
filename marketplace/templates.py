"""Plain-text contract and invoice documents (French, Swiss law)."""

from dataclasses import dataclass
from datetime import date, datetime

FORMAT_LABELS = {
    "9_16": "vertical 9:16",
    "16_9": "horizontal 16:9",
    "1_1": "carré 1:1",
    "4_5": "portrait 4:5",
}

SCRIPT_TYPE_LABELS = {
    "testimonial": "témoignage",
    "unboxing": "unboxing",
    "asmr": "ASMR",
    "tutorial": "tutoriel",
    "lifestyle": "lifestyle",
    "review": "avis produit",
}

RIGHTS_LABELS = {
    "organic": "usage organique (réseaux sociaux de la marque)",
    "paid_3m": "usage publicitaire payant pendant 3 mois",
    "paid_6m": "usage publicitaire payant pendant 6 mois",
    "paid_12m": "usage publicitaire payant pendant 12 mois",
    "perpetual": "usage illimité et perpétuel",
}

MISSING_ADDRESS = "Non renseignée"
DEFAULT_DEADLINE = "À convenir entre les parties"


def format_date_ch(value: date | datetime) -> str:
    """Swiss date format DD.MM.YYYY."""
    return value.strftime("%d.%m.%Y")


def format_timestamp_ch(value: datetime) -> str:
    return value.strftime("%d.%m.%Y à %H:%M")


def describe_deliverables(video_format: str, script_type: str) -> str:
    fmt = FORMAT_LABELS.get(video_format, video_format)
    kind = SCRIPT_TYPE_LABELS.get(script_type, script_type)
    return f"1 vidéo UGC au format {fmt}, type {kind}"


@dataclass(frozen=True, slots=True)
class ContractVariables:
    contract_number: str
    generated_at: datetime
    brand_company: str
    brand_contact: str
    brand_address: str
    brand_uid: str
    creator_name: str
    creator_address: str
    campaign_title: str
    deliverables: str
    rights_usage: str
    amount: str
    deadline: str
    revision_count: int
    payment_terms_days: int
    agency_name: str
    brand_signed_at: datetime | None = None
    brand_sign_ip: str | None = None
    creator_signed_at: datetime | None = None
    creator_sign_ip: str | None = None


@dataclass(frozen=True, slots=True)
class InvoiceVariables:
    invoice_number: str
    issued_on: date
    due_on: date
    agency_name: str
    agency_address: str
    agency_uid: str
    agency_email: str
    client_company: str
    client_address: str
    client_uid: str
    campaign_title: str
    description: str
    amount_net: str
    tva_rate: str
    amount_tva: str
    amount_gross: str


def _signature(label: str, name: str, signed_at: datetime | None, ip: str | None) -> str:
    if signed_at is None:
        return f"{label} : {name}\nEn attente de signature"
    return f"{label} : {name}\nSigné électroniquement le {format_timestamp_ch(signed_at)} (IP {ip or 'inconnue'})"


def render_contract(v: ContractVariables) -> str:
    return f"""CONTRAT DE PRESTATION DE SERVICES - CRÉATION DE CONTENU UGC
Contrat n° {v.contract_number}
Établi le {format_date_ch(v.generated_at)} via {v.agency_name}

ENTRE
{v.brand_company}, représentée par {v.brand_contact}
Adresse : {v.brand_address}
IDE : {v.brand_uid}
ci-après « le Mandant »

ET
{v.creator_name}
Adresse : {v.creator_address}
ci-après « le Créateur »

Article 1 - Objet
Le présent contrat constitue un mandat au sens des articles 394 ss du Code des obligations suisse.
Le Créateur s'engage à réaliser pour la campagne « {v.campaign_title} » : {v.deliverables}.

Article 2 - Délai
Livraison : {v.deadline}.

Article 3 - Révisions
Le Mandant dispose de {v.revision_count} révision(s) incluse(s). Toute révision supplémentaire fait l'objet d'un accord séparé.

Article 4 - Rémunération
Le Créateur perçoit {v.amount}, payable dans un délai de {v.payment_terms_days} jours après validation finale de la vidéo.

Article 5 - Droits d'utilisation
Dès la validation finale, le Créateur cède au Mandant les droits d'utilisation suivants : {v.rights_usage}.
Les vidéos livrées avant validation restent filigranées et ne peuvent être diffusées.

Article 6 - Confidentialité
Les parties s'engagent à garder confidentielles les informations échangées dans le cadre de la mission.

Article 7 - Droit applicable et for
Le présent contrat est soumis au droit suisse. Le for est à Lausanne.

SIGNATURES
{_signature("Le Mandant", v.brand_contact, v.brand_signed_at, v.brand_sign_ip)}

{_signature("Le Créateur", v.creator_name, v.creator_signed_at, v.creator_sign_ip)}
"""


def render_invoice(v: InvoiceVariables) -> str:
    return f"""{v.agency_name}
{v.agency_address}
IDE : {v.agency_uid} TVA
{v.agency_email}

FACTURE {v.invoice_number}
Date : {format_date_ch(v.issued_on)}
Échéance : {format_date_ch(v.due_on)}

Client :
{v.client_company}
{v.client_address}
IDE : {v.client_uid}

Campagne : {v.campaign_title}
Prestation : {v.description}

Montant HT : {v.amount_net}
TVA {v.tva_rate} : {v.amount_tva}
Total TTC : {v.amount_gross}

Paiement à {format_date_ch(v.due_on)} au plus tard.
"""
