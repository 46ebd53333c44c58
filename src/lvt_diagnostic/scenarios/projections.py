"""Field projections and the helpers that queue them on a session.

Each projection lists the property paths requested for one kind of remote
object. ``LIST_FIELDS`` expands the root folder's sub-folders; on a list
whose root folder holds more items than the list view threshold this
expansion alone makes the server reject the whole batch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lvt_diagnostic.exceptions import MissingHandleError

if TYPE_CHECKING:
    from lvt_diagnostic.client.models import QueryHandle
    from lvt_diagnostic.client.session import ClientSession
    from lvt_diagnostic.scenarios.views import ViewQuery

WEB_FIELDS: tuple[str, ...] = (
    "Lists(RootFolder/Properties,RootFolder/ServerRelativeUrl,Id)",
    "ServerRelativeUrl",
    "SiteUsers(Id,Email)",
    "Title",
    "Url",
    "Id",
)

# Document libraries that are visible, crawlable and not app packages.
WEB_LIST_FILTER = (
    "NoCrawl eq false and Hidden eq false and IsApplicationList eq false "
    "and BaseType eq 'DocumentLibrary' "
    "and ListItemEntityTypeFullName ne 'SP.Data.AppPackagesListItem' "
    "and ListItemEntityTypeFullName ne 'SP.Data.FormServerTemplatesItem'"
)

LIST_FIELDS: tuple[str, ...] = (
    "ContentTypes(Id,Name,Fields[Hidden eq false](FieldTypeKind,InternalName,Title))",
    "RootFolder/Name",
    "RootFolder/ItemCount",
    "RootFolder/ServerRelativeUrl",
    "RootFolder/Folders(Name,ServerRelativeUrl)",
    "ItemCount",
    "Title",
)

SIMPLE_LIST_FIELDS: tuple[str, ...] = (
    "Title",
    "RootFolder/Folders(Name)",
)

LIST_ITEM_FIELDS: tuple[str, ...] = (
    "ParentList/Id",
    "ParentList/RootFolder/ServerRelativeUrl",
    "ParentList/ParentWeb/Id",
    "ContentType/Id",
    "ContentType/Name",
    "DisplayName",
    "FileSystemObjectType",
    "Folder/ServerRelativeUrl",
    "File/CheckedOutByUser",
    "File/Exists",
    "File/Name",
    "File/ServerRelativeUrl",
    "File/TimeCreated",
    "File/TimeLastModified",
    "File/Title",
    "File/Length",
)


def _require_session(session: ClientSession | None) -> ClientSession:
    if session is None:
        raise MissingHandleError("session")
    return session


def load_web(session: ClientSession | None) -> QueryHandle:
    return _require_session(session).queue(
        "load_web", select=list(WEB_FIELDS), list_filter=WEB_LIST_FILTER
    )


def load_list(
    session: ClientSession | None,
    list_title: str,
    fields: tuple[str, ...] = LIST_FIELDS,
) -> QueryHandle:
    return _require_session(session).queue(
        "load_list", title=list_title, select=list(fields)
    )


def load_list_item_collection(
    session: ClientSession | None,
    list_handle: QueryHandle | None,
    view: ViewQuery,
) -> QueryHandle:
    """Queue one page of list items under the list behind ``list_handle``.

    Raises:
        MissingHandleError: If ``list_handle`` is ``None``.
    """
    if list_handle is None:
        raise MissingHandleError("list_handle")
    return _require_session(session).queue(
        "load_list_items",
        parent=list_handle.query_id,
        list_title=list_handle.params.get("title"),
        select=list(LIST_ITEM_FIELDS),
        **view.to_params(),
    )


def load_list_item(
    session: ClientSession | None,
    list_handle: QueryHandle | None,
    item_id: int,
) -> QueryHandle:
    """Queue a single list item by id.

    Raises:
        MissingHandleError: If ``list_handle`` is ``None``.
    """
    if list_handle is None:
        raise MissingHandleError("list_handle")
    return _require_session(session).queue(
        "load_list_item",
        parent=list_handle.query_id,
        list_title=list_handle.params.get("title"),
        item_id=item_id,
        select=list(LIST_ITEM_FIELDS),
    )
