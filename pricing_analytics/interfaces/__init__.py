"""
Interfaces vers les systèmes externes (base de données Supabase).
"""
