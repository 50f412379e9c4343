"""External collaborators: membership lookups and CRM contact sync."""
