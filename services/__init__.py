"""External collaborators: hazard feed, notifications and positions."""
