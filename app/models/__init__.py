from app.models.domain import DomainConfig, OriginRule, CertMode, DomainStatus
from app.models.optimized_endpoint import OptimizedEndpoint, EndpointKind
from app.models.certificate import Certificate
