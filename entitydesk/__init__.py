"""Entity clients, data table engine and reference CRUD backend."""
