"""StayDesk booking lifecycle service."""
