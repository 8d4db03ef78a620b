"""Mission workflow: step rules and the actions that drive a campaign."""
