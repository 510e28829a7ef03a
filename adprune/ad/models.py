from __future__ import annotations

from dataclasses import dataclass

from .utils import domain_to_base_dn, build_dc_fqdn


@dataclass
class ADConfig:
    server: str
    domain: str
    port: int = 636
    use_ssl: bool = True
    starttls: bool = False
    bind_username: str = ""
    bind_password: str = ""
    base_dn: str = ""
    tls_validate: bool = False
    ca_file: str = ""
    timeout_s: int = 30
    page_size: int = 1000

    @property
    def host(self) -> str:
        return build_dc_fqdn(self.server, self.domain)

    @property
    def search_base(self) -> str:
        """Explicit base DN wins, otherwise the domain naming context."""
        return (self.base_dn or "").strip() or domain_to_base_dn(self.domain)

    @property
    def bind_principal(self) -> str:
        u = (self.bind_username or "").strip()
        d = (self.domain or "").strip().strip(".")
        if not u:
            return ""
        # UPN, DOMAIN\user or a full DN are passed through
        if "@" in u or "\\" in u or "=" in u:
            return u
        return f"{u}@{d}" if d else u
