"""Application configuration loaded from environment variables."""

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SOURCE_URLS: Dict[str, str] = {
    "SDTM": "https://evs.nci.nih.gov/ftp1/CDISC/SDTM/SDTM%20Terminology.odm.xml",
    "DEFINE_XML": "https://evs.nci.nih.gov/ftp1/CDISC/Define-XML/Define-XML%20Terminology.odm.xml",
    "PROTOCOL": "https://evs.nci.nih.gov/ftp1/CDISC/Protocol/Protocol%20Terminology.odm.xml",
    "GLOSSARY": "https://evs.nci.nih.gov/ftp1/CDISC/Glossary/CDISC%20Glossary.odm.xml",
}


class Settings(BaseSettings):
    """Global application settings."""

    sdtm_ct_url: Optional[str] = None
    define_xml_ct_url: Optional[str] = None
    protocol_ct_url: Optional[str] = None
    glossary_ct_url: Optional[str] = None

    http_timeout_seconds: float = 60.0
    http_chunk_size: int = 64 * 1024
    http_user_agent: str = "ctsync/0.1"

    default_max_writes: int = 4000
    min_max_writes: int = 100
    max_max_writes: int = 20000
    batch_write_limit: int = Field(
        default=400, description="Writes per commit; Firestore rejects batches over 500."
    )

    codelists_collection: str = "cdisc_codelists"
    terms_collection: str = "cdisc_terms"

    firestore_project_id: Optional[str] = None
    firestore_database: Optional[str] = None
    firestore_credentials_file: Optional[str] = None
    firebase_admin_project_id: Optional[str] = None
    firebase_admin_client_email: Optional[str] = None
    firebase_admin_private_key: Optional[str] = Field(
        default=None, description="Service account key; literal \\n sequences are restored."
    )

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def source_url_for(self, terminology_type: str) -> str:
        overrides = {
            "SDTM": self.sdtm_ct_url,
            "DEFINE_XML": self.define_xml_ct_url,
            "PROTOCOL": self.protocol_ct_url,
            "GLOSSARY": self.glossary_ct_url,
        }
        if terminology_type not in DEFAULT_SOURCE_URLS:
            raise KeyError(terminology_type)
        return overrides.get(terminology_type) or DEFAULT_SOURCE_URLS[terminology_type]

    @property
    def firebase_private_key(self) -> Optional[str]:
        if not self.firebase_admin_private_key:
            return None
        return self.firebase_admin_private_key.replace("\\n", "\n")


settings = Settings()
