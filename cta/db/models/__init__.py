from .mixins import Base
from .content import Content, Template
from .tenant import Tenant, TenantTemplate
