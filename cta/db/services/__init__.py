from .content_service import ContentService, ContentNotFound
from .template_service import TemplateService, TemplateNotFound, DefaultTemplateProtected, TemplateInUse
from .tenant_service import TenantService, TenantNotFound
