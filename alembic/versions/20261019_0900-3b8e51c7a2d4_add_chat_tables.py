"""add_chat_tables

Revision ID: 3b8e51c7a2d4
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3b8e51c7a2d4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 用户快照（账号由外部系统维护）
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False, comment='显示名称'),
        sa.Column('email', sa.String(length=100), nullable=False, comment='邮箱（联系方式）'),
        sa.Column('avatar_url', sa.String(length=500), nullable=True, comment='头像地址'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), comment='是否激活'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'], unique=False)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'trips',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False, comment='行程标题'),
        sa.Column('created_by', sa.Integer(), nullable=False, comment='创建者'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trips_id', 'trips', ['id'], unique=False)
    op.create_index('ix_trips_created_by', 'trips', ['created_by'], unique=False)

    op.create_table(
        'trip_participants',
        sa.Column('trip_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('trip_id', 'user_id'),
    )

    op.create_table(
        'chat_messages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.Integer(), nullable=False, comment='所属行程'),
        sa.Column('sender_id', sa.Integer(), nullable=False, comment='发送者'),
        sa.Column('kind', sa.String(length=16), nullable=False, server_default='text', comment='text | voice'),
        sa.Column('body', sa.Text(), nullable=False, server_default='', comment='文本内容（已去除首尾空白）'),
        sa.Column('voice_payload', sa.Text(), nullable=True, comment='语音内容（data URI 或 URL）'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='服务端写入时间'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        comment='行程聊天消息（只追加或硬删除）'
    )
    op.create_index('ix_chat_messages_id', 'chat_messages', ['id'], unique=False)
    op.create_index('ix_chat_messages_sender_id', 'chat_messages', ['sender_id'], unique=False)
    op.create_index('ix_chat_messages_trip_created', 'chat_messages', ['trip_id', 'created_at', 'id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_chat_messages_trip_created', table_name='chat_messages')
    op.drop_index('ix_chat_messages_sender_id', table_name='chat_messages')
    op.drop_index('ix_chat_messages_id', table_name='chat_messages')
    op.drop_table('chat_messages')
    op.drop_table('trip_participants')
    op.drop_index('ix_trips_created_by', table_name='trips')
    op.drop_index('ix_trips_id', table_name='trips')
    op.drop_table('trips')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
