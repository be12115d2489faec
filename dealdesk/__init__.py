"""DealDesk progressive-disclosure API: document checklists and partner deal releases."""

__version__ = "0.1.0"
