"""create_master_case_documents

Revision ID: 20250301_1000_mcd
Revises:
Create Date: 2025-03-01 10:00:00

Almacén documental de casos:
- Un registro por (case_id, user_id)
- Lápida is_deleted, nunca borrado físico
- version se incrementa en cada escritura
- Estado de sincronización con la rama judicial
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20250301_1000_mcd'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'master_case_documents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('case_id', sa.String(length=64), nullable=False, comment='Identificador del caso (mayúsculas)'),
        sa.Column('user_id', sa.String(length=128), nullable=False, comment='Propietario del caso'),
        sa.Column('user_email', sa.String(length=255), nullable=True),

        # Contenido del caso
        sa.Column('parties', sa.JSON(), nullable=False, comment='{plaintiff, defendant, other[]}'),
        sa.Column('case_type', sa.String(length=128), nullable=False, server_default='General'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='new'),
        sa.Column('deadlines', sa.JSON(), nullable=False),
        sa.Column('last_documents', sa.JSON(), nullable=False),
        sa.Column('next_actions', sa.JSON(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('court', sa.String(length=255), nullable=True),
        sa.Column('attorney', sa.String(length=255), nullable=True),
        sa.Column('last_action', sa.JSON(), nullable=True, comment='{title, date}'),
        sa.Column('mcd_file_path', sa.String(length=512), nullable=True),
        sa.Column('source', sa.String(length=32), nullable=False, server_default='manual'),

        # Rama judicial (CPNU)
        sa.Column('radicado_cpnu', sa.String(length=23), nullable=True),
        sa.Column('linked_cpnu', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cpnu_bootstrap_done', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cpnu_bootstrap_at', sa.DateTime(), nullable=True),
        sa.Column('cpnu_bootstrap_by', sa.String(length=128), nullable=True),
        sa.Column('cpnu_last_fecha_registro', sa.String(length=10), nullable=True),
        sa.Column('cpnu_last_sync_at', sa.DateTime(), nullable=True),
        sa.Column('cpnu_last_sync_status', sa.String(length=16), nullable=True),
        sa.Column('cpnu_actuaciones', sa.JSON(), nullable=False),
        sa.Column('cpnu_clase_proceso', sa.String(length=255), nullable=True),

        # Lápida
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_by', sa.String(length=128), nullable=True),

        sa.Column('version', sa.Integer(), nullable=False, server_default='0', comment='Se incrementa en cada escritura'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),

        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('case_id', 'user_id', name='uq_mcd_case_user'),
    )

    op.create_index('ix_master_case_documents_case_id', 'master_case_documents', ['case_id'])
    op.create_index('ix_master_case_documents_user_id', 'master_case_documents', ['user_id'])
    op.create_index('ix_master_case_documents_is_deleted', 'master_case_documents', ['is_deleted'])


def downgrade() -> None:
    op.drop_index('ix_master_case_documents_is_deleted', 'master_case_documents')
    op.drop_index('ix_master_case_documents_user_id', 'master_case_documents')
    op.drop_index('ix_master_case_documents_case_id', 'master_case_documents')
    op.drop_table('master_case_documents')
