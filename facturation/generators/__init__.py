"""Document generators: PDF layout (reportlab) and e-invoice payloads."""
