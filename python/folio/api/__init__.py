"""HTTP surface of the Folio API."""
