"""Huddle: event participation and live chat backend."""
