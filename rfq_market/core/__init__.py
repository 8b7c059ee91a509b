"""Shared configuration, logging, dates, status taxonomy, persistence and auth."""
