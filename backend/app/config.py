# backend/app/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/erp_gateway.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///erp_gateway.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # ERP connection. Read once into an ErpConfig when the app is created.
    ERP_BASE_URL = os.environ.get("SAP_BASE_URL", "")
    ERP_USERNAME = os.environ.get("SAP_USERNAME", "")
    ERP_PASSWORD = os.environ.get("SAP_PASSWORD", "")
    ERP_CLIENT = os.environ.get("SAP_CLIENT", "")
    ERP_GR_PATH = os.environ.get("SAP_GR_PATH", "/zapi/ZAPI/OJI_GR_ENTRY")
    ERP_PO_PATH = os.environ.get(
        "SAP_PO_PATH",
        "/sap/opu/odata4/sap/zmm_oji_po_bind/srvd/sap/zmm_oji_po/0001/ZPOA_DTL_LIST(po_no='{po_no}')/Set",
    )
    ERP_TIMEOUT_SECONDS = float(os.environ.get("SAP_TIMEOUT_SECONDS", "30"))
    # The ERP host serves a self-signed certificate on most plant networks
    ERP_VERIFY_TLS = _env_bool("SAP_VERIFY_TLS", False)

    # Account administration
    USER_ID_PREFIX = os.environ.get("USER_ID_PREFIX", "OJSAIT")
    ADMIN_DEPARTMENT = os.environ.get("ADMIN_DEPARTMENT", "IT")

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }
