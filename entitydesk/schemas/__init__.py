"""Pydantic schemas shared by clients and routers."""
