
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("adl-bill-ledger-ingest", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, alias="LOG_FILE")

    # Azure Document Intelligence (OCR)
    az_di_endpoint: str | None = Field(default=None, alias="AZ_DI_ENDPOINT")
    az_di_api_key: str | None = Field(default=None, alias="AZ_DI_API_KEY")
    az_di_model_id: str = Field("prebuilt-read", alias="AZ_DI_MODEL_ID")
    ocr_default_language: str = Field("en", alias="OCR_DEFAULT_LANGUAGE")

    # Microsoft Identity
    ms_tenant_id: str | None = Field(default=None, alias="MS_TENANT_ID")
    ms_client_id: str | None = Field(default=None, alias="MS_CLIENT_ID")
    ms_client_secret: str | None = Field(default=None, alias="MS_CLIENT_SECRET")

    # Graph
    graph_scope: str = Field("https://graph.microsoft.com/.default", alias="GRAPH_SCOPE")
    graph_base_url: str = Field("https://graph.microsoft.com/v1.0", alias="GRAPH_BASE_URL")
    graph_drive_id: str | None = Field(default=None, alias="GRAPH_DRIVE_ID")

    # Bill folder: "graph" (OneDrive / SharePoint drive folder) or "local" (directory)
    # BILLS_FOLDER_ID is a directory for "local"; a drive item id or "root:/path:" for "graph"
    folder_backend: str = Field("local", alias="FOLDER_BACKEND")
    bills_folder_id: str = Field("bills-incoming", alias="BILLS_FOLDER_ID")
    local_folder_root: str = Field(".", alias="LOCAL_FOLDER_ROOT")

    # Ledger workbook
    ledger_workbook_path: str = Field("bill_ledger.xlsx", alias="LEDGER_WORKBOOK_PATH")
    ledger_sheet_name: str = Field("Bills", alias="LEDGER_SHEET_NAME")

    # Run lock
    lock_path: str = Field("ingest.lock", alias="LOCK_PATH")
    lock_timeout_seconds: float = Field(10.0, alias="LOCK_TIMEOUT_SECONDS")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

settings = Settings()
