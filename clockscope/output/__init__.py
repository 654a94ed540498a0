"""Text and JSON presentation of probe results."""
