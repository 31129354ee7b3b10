"""
Service Layer

This package holds the business logic that sits between the HTTP routes and
the database. Routes parse requests and map results to responses; services
enforce the group rules and return a ServiceResult.

Architecture:
============

1. **Base Services** (base.py):
   - Error kinds and the ServiceResult type
   - The service_method logging/error decorator

2. **Persistence Gateway** (gateway.py):
   - create/find/update/list over a SQLAlchemy session
   - Transaction scope for multi-step operations

3. **Domain Services** (domain/):
   - Group membership and notice management

4. **Integration Services** (integration/):
   - Asynchronous notification dispatch through Celery

Usage Example:
=============

```python
from app.core.database import SessionLocal
from app.services import GroupService, NotificationService, PersistenceGateway

service = GroupService(PersistenceGateway(SessionLocal()), NotificationService())
service.initialize({"members_can_invite": False})

result = service.create_group(1, {"name": "Weekend hikers"}, [2, 3])
if result.success:
    print(result.data["group_id"])
else:
    print(result.kind, result.error.message)
```
"""

from .base import BaseService, ServiceError, ServiceResult, ErrorKind
from .gateway import PersistenceGateway
from .domain import *
from .integration import *

__all__ = [
    'BaseService',
    'ServiceError',
    'ServiceResult',
    'ErrorKind',
    'PersistenceGateway',
    'GroupService',
    'Role',
    'NotificationService',
    'GroupEvent'
]
