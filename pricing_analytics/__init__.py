"""
Moteur d'analyse pricing / revenus pour le back-office retail.

Ce package contient :
- la configuration (paramètres d'environnement et constantes métier),
- l'accès aux ventes historiques (Supabase/PostgreSQL),
- les modèles d'élasticité et de projection de revenus,
- les calculateurs exposés au serveur : recommandations de prix,
  revenus projetés, évolution du chiffre d'affaires et paniers
  (tendances par jour de semaine, bundles),
- l'optimiseur de prix par élasticité.
"""
