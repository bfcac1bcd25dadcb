# generate/ddl.py
from engine.meta_models import DatabaseDesign, TableDesign
from engine.type_mapping import sql_type_for

def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'

def generate_table_ddl(table: TableDesign) -> str:
    columns = []
    for f in table.fields:
        col_def = f"{_quote(f.fieldName)} {sql_type_for(f)}"
        if f.required:
            col_def += " NOT NULL"
        if f.generated:
            col_def += " AUTO_INCREMENT"
        columns.append(col_def)
    return f"CREATE TABLE {_quote(table.tableName)} (\n  " + ",\n  ".join(columns) + "\n);"

def generate_ddl(design: DatabaseDesign) -> str:
    """
    Canonical CREATE TABLE text for a design. Parsing the result gives back
    the same types, required flags, generated flags, choices, integer widths
    and signedness and, for text, binary and numeric fields, the same byte
    bounds. An integer field without a width comes back as a 32-bit INT.
    Patterns have no SQL form and are not carried.
    """
    return "\n\n".join(generate_table_ddl(t) for t in design.tables) + "\n"
