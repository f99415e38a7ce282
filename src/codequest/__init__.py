"""CodeQuest API: coding journeys and human-versus-AI challenges."""
