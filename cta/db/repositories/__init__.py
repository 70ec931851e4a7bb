from .tenant_repo import TenantRepo, MappingRepo
from .content_repo import ContentRepo, TemplateRepo
