"""Bundled BankID root certificates (ca_prod.crt, ca_test.crt)."""
