"""Attribute vocabulary per directory flavour."""

from __future__ import annotations

from typing import Dict, List

from dirbridge.core.exception import CriteriaBuildError
from dirbridge.core.query import DirectoryType, FieldRef, FieldType, ObjectType

_AD_ATTRIBUTES: Dict[FieldType, str] = {
    FieldType.COMMON_NAME: "cn",
    FieldType.FIRST_NAME: "givenName",
    FieldType.LAST_NAME: "sn",
    FieldType.DISPLAY_NAME: "displayName",
    FieldType.EMAIL: "mail",
    FieldType.LOGON_NAME: "sAMAccountName",
    FieldType.USER_PRINCIPAL_NAME: "userPrincipalName",
    FieldType.DISTINGUISHED_NAME: "distinguishedName",
    FieldType.OBJECT_CLASS: "objectClass",
    FieldType.OBJECT_GUID: "objectGUID",
    FieldType.OBJECT_SID: "objectSid",
    FieldType.MEMBER: "member",
    FieldType.MEMBER_OF: "memberOf",
    FieldType.DESCRIPTION: "description",
    FieldType.PHONE: "telephoneNumber",
    FieldType.DEPARTMENT: "department",
    FieldType.TITLE: "title",
    FieldType.MANAGER: "manager",
    FieldType.PASSWORD: "unicodePwd",
    FieldType.ACCOUNT_CONTROL: "userAccountControl",
    FieldType.WHEN_CREATED: "whenCreated",
    FieldType.WHEN_CHANGED: "whenChanged",
}

# OpenLDAP has no equivalent for the AD-only identity/control attributes.
_OPENLDAP_ATTRIBUTES: Dict[FieldType, str] = {
    FieldType.COMMON_NAME: "cn",
    FieldType.FIRST_NAME: "givenName",
    FieldType.LAST_NAME: "sn",
    FieldType.DISPLAY_NAME: "displayName",
    FieldType.EMAIL: "mail",
    FieldType.LOGON_NAME: "uid",
    FieldType.DISTINGUISHED_NAME: "entryDN",
    FieldType.OBJECT_CLASS: "objectClass",
    FieldType.OBJECT_GUID: "entryUUID",
    FieldType.MEMBER: "member",
    FieldType.MEMBER_OF: "memberOf",
    FieldType.DESCRIPTION: "description",
    FieldType.PHONE: "telephoneNumber",
    FieldType.DEPARTMENT: "departmentNumber",
    FieldType.TITLE: "title",
    FieldType.MANAGER: "manager",
    FieldType.PASSWORD: "userPassword",
    FieldType.WHEN_CREATED: "createTimestamp",
    FieldType.WHEN_CHANGED: "modifyTimestamp",
}

_AD_SEARCH_CLASSES: Dict[ObjectType, str] = {
    ObjectType.USER: "(&(objectCategory=person)(objectClass=user))",
    ObjectType.GROUP: "(objectClass=group)",
    ObjectType.COMPUTER: "(objectClass=computer)",
    ObjectType.OU: "(objectClass=organizationalUnit)",
}

_OPENLDAP_SEARCH_CLASSES: Dict[ObjectType, str] = {
    ObjectType.USER: "(objectClass=inetOrgPerson)",
    ObjectType.GROUP: "(objectClass=groupOfNames)",
    ObjectType.COMPUTER: "(objectClass=device)",
    ObjectType.OU: "(objectClass=organizationalUnit)",
}

_AD_ADD_CLASSES: Dict[ObjectType, List[str]] = {
    ObjectType.USER: ["top", "person", "organizationalPerson", "user"],
    ObjectType.GROUP: ["top", "group"],
    ObjectType.COMPUTER: ["top", "person", "organizationalPerson", "user", "computer"],
    ObjectType.OU: ["top", "organizationalUnit"],
}

_OPENLDAP_ADD_CLASSES: Dict[ObjectType, List[str]] = {
    ObjectType.USER: ["top", "person", "organizationalPerson", "inetOrgPerson"],
    ObjectType.GROUP: ["top", "groupOfNames"],
    ObjectType.COMPUTER: ["top", "device"],
    ObjectType.OU: ["top", "organizationalUnit"],
}

_ATTRIBUTES = {
    DirectoryType.MS_ACTIVE_DIRECTORY: _AD_ATTRIBUTES,
    DirectoryType.OPEN_LDAP: _OPENLDAP_ATTRIBUTES,
}
_SEARCH_CLASSES = {
    DirectoryType.MS_ACTIVE_DIRECTORY: _AD_SEARCH_CLASSES,
    DirectoryType.OPEN_LDAP: _OPENLDAP_SEARCH_CLASSES,
}
_ADD_CLASSES = {
    DirectoryType.MS_ACTIVE_DIRECTORY: _AD_ADD_CLASSES,
    DirectoryType.OPEN_LDAP: _OPENLDAP_ADD_CLASSES,
}


def attribute_name(ref: FieldRef, directory_type: DirectoryType) -> str:
    """Resolve a field reference to the attribute name of the directory flavour."""
    if isinstance(ref, FieldType):
        name = _ATTRIBUTES[directory_type].get(ref)
        if name is None:
            raise CriteriaBuildError(f"Field {ref.name} is not supported by {directory_type.value}")
        return name
    if not isinstance(ref, str) or not ref.strip():
        raise CriteriaBuildError(f"Invalid field reference: {ref!r}")
    return ref.strip()


def object_class_clause(object_type: ObjectType, directory_type: DirectoryType) -> str | None:
    if object_type is ObjectType.ANY:
        return None
    clause = _SEARCH_CLASSES[directory_type].get(object_type)
    if clause is None:
        raise CriteriaBuildError(f"Object type {object_type.value} is not supported by {directory_type.value}")
    return clause


def object_classes(object_type: ObjectType, directory_type: DirectoryType) -> List[str]:
    if object_type is ObjectType.ANY:
        return []
    classes = _ADD_CLASSES[directory_type].get(object_type)
    if classes is None:
        raise CriteriaBuildError(f"Object type {object_type.value} is not supported by {directory_type.value}")
    return list(classes)
