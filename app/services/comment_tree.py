"""Comment thread assembly"""
from collections import defaultdict
from typing import Dict, List, Optional
from uuid import UUID

from app.models.comment import Comment
from app.schemas.comment import CommentNode

GUEST_FALLBACK_NAME = "Guest"


def author_name(comment: Comment, owner_display_name: str) -> str:
    """Registered users show under the treasurer name, guests under their own"""
    if comment.user_id is not None:
        return owner_display_name
    return comment.guest_name or GUEST_FALLBACK_NAME


def _to_node(comment: Comment, replies: List[CommentNode], owner_display_name: str) -> CommentNode:
    if comment.is_deleted:
        # Tombstone: keeps the thread shape, hides everything else
        return CommentNode(
            id=comment.id,
            settlement_id=comment.settlement_id,
            parent_comment_id=comment.parent_comment_id,
            is_deleted=True,
            created_at=comment.created_at,
            replies=replies,
        )
    return CommentNode(
        id=comment.id,
        settlement_id=comment.settlement_id,
        parent_comment_id=comment.parent_comment_id,
        content=comment.content,
        image_url=list(comment.image_url or []),
        author_name=author_name(comment, owner_display_name),
        user_id=comment.user_id,
        is_guest=comment.is_guest,
        is_pinned=comment.is_pinned,
        created_at=comment.created_at,
        replies=replies,
    )


def build_comment_tree(comments: List[Comment], owner_display_name: str) -> List[CommentNode]:
    """
    Arrange comments into threads.

    A deleted comment stays as a tombstone while any descendant is visible
    and disappears otherwise. Top-level comments are ordered pinned first,
    then newest first; replies read oldest first.

    Args:
        comments: All comments of one settlement, deleted ones included
        owner_display_name: Name shown for registered-user comments

    Returns:
        Root nodes with nested replies
    """
    by_id: Dict[UUID, Comment] = {c.id: c for c in comments}
    children: Dict[Optional[UUID], List[Comment]] = defaultdict(list)
    for comment in comments:
        parent = comment.parent_comment_id
        # Orphans (parent missing) are shown at the top level
        children[parent if parent in by_id else None].append(comment)

    def visit(comment: Comment) -> Optional[CommentNode]:
        replies = []
        for child in sorted(children.get(comment.id, []), key=lambda c: c.created_at):
            node = visit(child)
            if node is not None:
                replies.append(node)
        if comment.is_deleted and not replies:
            return None
        return _to_node(comment, replies, owner_display_name)

    roots = [visit(c) for c in children.get(None, [])]
    roots = [node for node in roots if node is not None]
    roots.sort(key=lambda n: n.created_at, reverse=True)
    roots.sort(key=lambda n: not n.is_pinned)
    return roots


def count_visible(nodes: List[CommentNode]) -> int:
    """Number of non-tombstone comments in a forest"""
    return sum((0 if n.is_deleted else 1) + count_visible(n.replies) for n in nodes)
