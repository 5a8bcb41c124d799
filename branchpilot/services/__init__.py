"""Ticket lifecycle services: status resolution, branch sync, PR publishing, pipeline."""
