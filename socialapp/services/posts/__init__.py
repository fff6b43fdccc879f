from .post_service import PostService, can_view_post, visible_posts_query

__all__ = ["PostService", "can_view_post", "visible_posts_query"]
