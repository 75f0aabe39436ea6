"""FastAPI tool server exposing HubSpot CRM tools."""
