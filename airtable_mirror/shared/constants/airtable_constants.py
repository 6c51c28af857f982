"""
Constantes relacionadas con la API de Airtable y las tablas espejadas.
"""

# La API de Airtable solo permite borrar hasta 10 registros por llamada
AIRTABLE_DELETE_LIMIT = 10

AIRTABLE_PAGE_SIZE = 100

# Campos que Airtable gestiona por su cuenta y no acepta al crear un registro
DEFAULT_DISALLOWED_CREATE_FIELDS = ("Airtable Record ID",)

DEFAULT_REMOVAL_FLAG_FIELD = "remove (from linked_admin_info)"

ITEMS_TABLE = "Items"

# Tablas que alimentan la web
WEB_TABLES = ["Composite_Objects", "Items", "Subjects", "Entities"]

# Respaldo completo de la base
ALL_TABLES = [
    "Items",
    "Composite_Objects",
    "Entities",
    "Locations",
    "Subjects",
    "Relationships",
    "Item_Admin_Info",
    "Person_Admin_Info",
    "Lakeland_Book",
    "Lakeland_Tour_Sites",
]
