"""Create users, relationship, post and story tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 10:12:31.402117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('USER', 'ADMIN', name='userrole')
request_status = sa.Enum('PENDING', 'ACCEPTED', 'DECLINED', 'CANCELLED', name='friendrequeststatus')
mark_direction = sa.Enum('INCOMING', 'OUTGOING', name='markdirection')
verdict_tag = sa.Enum(
    'PENDING', 'VERIFIED', 'MISLEADING', 'FALSE', 'OUTDATED', 'UNVERIFIED', 'NOT_APPLICABLE',
    name='verdicttag',
)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('picture_url', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'friends',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('friend_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'friend_id', name='uq_friends_pair'),
    )
    op.create_index('ix_friends_id', 'friends', ['id'])
    op.create_index('ix_friends_user_id', 'friends', ['user_id'])
    op.create_index('ix_friends_friend_id', 'friends', ['friend_id'])

    op.create_table(
        'friend_requests',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('from_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('to_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', request_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_friend_requests_id', 'friend_requests', ['id'])
    op.create_index('ix_friend_requests_from_user_id', 'friend_requests', ['from_user_id'])
    op.create_index('ix_friend_requests_to_user_id', 'friend_requests', ['to_user_id'])
    op.create_index(
        'uq_friend_requests_pending_pair',
        'friend_requests',
        ['from_user_id', 'to_user_id'],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
        sqlite_where=sa.text("status = 'PENDING'"),
    )

    op.create_table(
        'friend_request_marks',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('other_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('direction', mark_direction, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'other_user_id', 'direction', name='uq_friend_request_marks_edge'),
    )
    op.create_index('ix_friend_request_marks_id', 'friend_request_marks', ['id'])
    op.create_index('ix_friend_request_marks_user_id', 'friend_request_marks', ['user_id'])
    op.create_index('ix_friend_request_marks_other_user_id', 'friend_request_marks', ['other_user_id'])

    op.create_table(
        'posts',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('author_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('media_url', sa.String(), nullable=False),
        sa.Column('ai_tag', verdict_tag, nullable=False),
        sa.Column('ai_summary', sa.Text(), nullable=False),
        sa.Column('ai_score', sa.Integer(), nullable=True),
        sa.Column('ai_raw', sa.JSON(), nullable=True),
        sa.Column('ai_error', sa.Text(), nullable=True),
        sa.Column('ai_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('likes_count', sa.Integer(), nullable=False),
        sa.Column('comments_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_posts_id', 'posts', ['id'])
    op.create_index('ix_posts_author_id', 'posts', ['author_id'])
    op.create_index('ix_posts_ai_tag', 'posts', ['ai_tag'])
    op.create_index('ix_posts_created_at', 'posts', ['created_at'])

    op.create_table(
        'post_likes',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('post_id', sa.String(), sa.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('post_id', 'user_id', name='uq_post_likes_post_user'),
    )
    op.create_index('ix_post_likes_post_id', 'post_likes', ['post_id'])
    op.create_index('ix_post_likes_user_id', 'post_likes', ['user_id'])

    op.create_table(
        'post_comments',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('post_id', sa.String(), sa.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_post_comments_post_id', 'post_comments', ['post_id'])
    op.create_index('ix_post_comments_user_id', 'post_comments', ['user_id'])

    op.create_table(
        'stories',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('author_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('text', sa.String(300), nullable=False),
        sa.Column('media_url', sa.String(), nullable=False),
        sa.Column('media_type', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('views_count', sa.Integer(), nullable=False),
    )
    op.create_index('ix_stories_id', 'stories', ['id'])
    op.create_index('ix_stories_author_id', 'stories', ['author_id'])
    op.create_index('ix_stories_expires_at', 'stories', ['expires_at'])

    op.create_table(
        'story_views',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('story_id', sa.String(), sa.ForeignKey('stories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('viewer_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('viewed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('story_id', 'viewer_id', name='uq_story_views_story_viewer'),
    )
    op.create_index('ix_story_views_story_id', 'story_views', ['story_id'])
    op.create_index('ix_story_views_viewer_id', 'story_views', ['viewer_id'])


def downgrade() -> None:
    op.drop_table('story_views')
    op.drop_table('stories')
    op.drop_table('post_comments')
    op.drop_table('post_likes')
    op.drop_table('posts')
    op.drop_table('friend_request_marks')
    op.drop_table('friend_requests')
    op.drop_table('friends')
    op.drop_table('users')
    op.execute('DROP TYPE IF EXISTS verdicttag')
    op.execute('DROP TYPE IF EXISTS markdirection')
    op.execute('DROP TYPE IF EXISTS friendrequeststatus')
    op.execute('DROP TYPE IF EXISTS userrole')
