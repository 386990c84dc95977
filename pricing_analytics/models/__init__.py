"""
Modèles numériques : élasticité prix et projection de revenus.
"""
