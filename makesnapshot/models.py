from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Catalog values identifying a vSphere virtual machine resource
CATALOG_RESOURCE_TYPE = 'CatalogResource'
VSPHERE_MACHINE_ICON = 'Infrastructure.CatalogItem.Machine.Virtual.vSphere'
VIRTUAL_RESOURCE_TYPE_ID = 'Infrastructure.Virtual'
VIRTUAL_RESOURCE_TYPE_LABEL = 'Virtual Machine'
RESOURCE_ID_LENGTH = 36

# Resource names carry a tenant prefix that is skipped when matching
TENANT_PREFIX_LENGTH = 3

SNAPSHOT_ACTION_NAME = 'Create VM Snapshot'
SNAPSHOT_ACTION_TYPE = 'ACTION'

STATE_SUCCESSFUL = 'Successful'
STATE_FAILED = 'Failed'


class TokenRequest(BaseModel):
    username: str
    password: str
    tenant: str


class TokenResponse(BaseModel):
    id: str = ''
    expires: Optional[str] = None
    tenant: Optional[str] = None


class ErrorDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    system_message: Optional[str] = Field(default=None, alias='systemMessage')


class ErrorResponse(BaseModel):
    errors: List[ErrorDetail] = []


class ResourceTypeRef(BaseModel):
    id: Optional[str] = None
    label: Optional[str] = None


class CatalogResource(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Optional[str] = Field(default=None, alias='@type')
    id: Optional[str] = None
    icon_id: Optional[str] = Field(default=None, alias='iconId')
    resource_type_ref: Optional[ResourceTypeRef] = Field(default=None, alias='resourceTypeRef')
    name: Optional[str] = None

    def is_virtual_machine(self):
        """True for a vSphere virtual machine entry with a well-formed id."""
        ref = self.resource_type_ref
        return (
            self.type == CATALOG_RESOURCE_TYPE
            and self.id is not None
            and len(self.id) == RESOURCE_ID_LENGTH
            and bool(self.id.strip())
            and self.icon_id == VSPHERE_MACHINE_ICON
            and ref is not None
            and ref.id == VIRTUAL_RESOURCE_TYPE_ID
            and ref.label == VIRTUAL_RESOURCE_TYPE_LABEL
        )

    def matches_name(self, machine, ignore_case=False):
        """
        Compare the resource name, minus its tenant prefix, with a machine name.

        The comparison is literal equality: a name that merely contains the
        machine name does not match.
        """
        if not self.name or len(self.name) <= TENANT_PREFIX_LENGTH:
            return False
        name = self.name[TENANT_PREFIX_LENGTH:]
        if ignore_case:
            return name.casefold() == machine.casefold()
        return name == machine


class ResourceList(BaseModel):
    content: List[CatalogResource] = []


class ResourceAction(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    id: Optional[str] = None


class ActionList(BaseModel):
    content: List[ResourceAction] = []


class SnapshotRequestData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    existing_snapshot_name: Optional[str] = Field(default=None, alias='provider-existingSnapshotName')
    delete_existing: bool = Field(default=True, alias='provider-deleteExisting')
    description: str = Field(default='Snapshotdescription', alias='provider-description')
    name: str = Field(default='Snapshot name', alias='provider-name')
    presentation_instance: Optional[str] = Field(default=None, alias='provider-__ASD_PRESENTATION_INSTANCE')
    tenant_ref: str = Field(alias='provider-__asd_tenantRef')


class SnapshotRequest(BaseModel):
    type: str = 'com.vmware.vcac.catalog.domain.request.CatalogResourceRequest'
    data: SnapshotRequestData
    description: str = 'makeSnapshot call'

    @classmethod
    def for_tenant(cls, tenant, keep_existing=False):
        """Build the request body; an existing snapshot is replaced unless keep_existing is set."""
        return cls(data=SnapshotRequestData(delete_existing=not keep_existing, tenant_ref=tenant))


class RequestStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    state_name: Optional[str] = Field(default=None, alias='stateName')
