"""GA4 event tracking verification: browser-driven capture, attribution and ARD comparison."""

__version__ = "0.1.0"
