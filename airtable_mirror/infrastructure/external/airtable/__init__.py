"""
Adaptador de la API REST de Airtable.

El espejo solo necesita tres operaciones remotas: leer páginas, borrar por
lotes de hasta 10 ids y crear un registro.
"""
