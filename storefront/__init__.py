"""Backend boutique: commandes, paiement Stripe et réconciliation des webhooks."""
