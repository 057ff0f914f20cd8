"""create_payment_application_tables

Revision ID: 3b1e9c4d2a10
Revises:
Create Date: 2026-10-18 10:12:44.381204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1e9c4d2a10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

factura_estado = sa.Enum('ABIERTA', 'PARCIAL', 'PAGADA', 'VENCIDA', 'ANULADA', name='factura_estado')
forma_pago = sa.Enum('EFECTIVO', 'TRANSFERENCIA', 'CHEQUE', 'TARJETA', 'DEPOSITO', name='forma_pago')
audit_action = sa.Enum('CREATE', 'READ', 'UPDATE', 'DELETE', name='audit_action')
audit_resource = sa.Enum('PAYMENT', 'INVOICE', name='audit_resource')


def _common_columns():
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('creado_el', sa.DateTime(timezone=True), nullable=False),
        sa.Column('actualizado_el', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'facturas',
        sa.Column('contrato_id', sa.Integer(), nullable=True),
        sa.Column('numero_factura', sa.String(length=50), nullable=True),
        sa.Column('anio_periodo', sa.Integer(), nullable=True),
        sa.Column('mes_periodo', sa.Integer(), nullable=True),
        sa.Column('fecha_emision', sa.Date(), nullable=True),
        sa.Column('fecha_vencimiento', sa.Date(), nullable=True),
        sa.Column('detalle', sa.Text(), nullable=True),
        sa.Column('monto_total', sa.Numeric(precision=12, scale=2), nullable=False,
                  comment='Monto original de la factura'),
        sa.Column('saldo_pendiente', sa.Numeric(precision=12, scale=2), nullable=False,
                  comment='Saldo aún no liquidado por pagos aplicados'),
        sa.Column('estado', factura_estado, nullable=False),
        *_common_columns(),
        sa.CheckConstraint('saldo_pendiente >= 0', name=op.f('ck_facturas_saldo_pendiente_no_negativo')),
        sa.CheckConstraint('monto_total >= 0', name=op.f('ck_facturas_monto_total_no_negativo')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_facturas'))
    )
    op.create_index(op.f('ix_facturas_id'), 'facturas', ['id'], unique=False)
    op.create_index(op.f('ix_facturas_contrato_id'), 'facturas', ['contrato_id'], unique=False)
    op.create_index(op.f('ix_facturas_numero_factura'), 'facturas', ['numero_factura'], unique=False)
    op.create_index(op.f('ix_facturas_estado'), 'facturas', ['estado'], unique=False)

    op.create_table(
        'pagos',
        sa.Column('contrato_id', sa.Integer(), nullable=True),
        sa.Column('forma_pago', forma_pago, nullable=False),
        sa.Column('fecha_pago', sa.Date(), nullable=False),
        sa.Column('referencia', sa.String(length=80), nullable=True,
                  comment='Número de boleta, transferencia o cheque'),
        sa.Column('monto', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('saldo_no_aplicado', sa.Numeric(precision=12, scale=2), nullable=False,
                  comment='Monto aún no asignado a facturas'),
        sa.Column('notas', sa.Text(), nullable=True),
        sa.Column('creado_por', sa.Integer(), nullable=True),
        sa.Column('eliminado_el', sa.DateTime(timezone=True), nullable=True),
        *_common_columns(),
        sa.CheckConstraint('monto > 0', name=op.f('ck_pagos_monto_positivo')),
        sa.CheckConstraint('saldo_no_aplicado >= 0', name=op.f('ck_pagos_saldo_no_aplicado_no_negativo')),
        sa.CheckConstraint('saldo_no_aplicado <= monto', name=op.f('ck_pagos_saldo_no_aplicado_max_monto')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_pagos'))
    )
    op.create_index(op.f('ix_pagos_id'), 'pagos', ['id'], unique=False)
    op.create_index(op.f('ix_pagos_contrato_id'), 'pagos', ['contrato_id'], unique=False)

    op.create_table(
        'aplicaciones_pago',
        sa.Column('pago_id', sa.Integer(), nullable=False),
        sa.Column('factura_id', sa.Integer(), nullable=False),
        sa.Column('monto_aplicado', sa.Numeric(precision=12, scale=2), nullable=False),
        *_common_columns(),
        sa.CheckConstraint('monto_aplicado > 0', name=op.f('ck_aplicaciones_pago_monto_aplicado_positivo')),
        sa.ForeignKeyConstraint(['pago_id'], ['pagos.id'], name=op.f('fk_aplicaciones_pago_pago_id_pagos')),
        sa.ForeignKeyConstraint(['factura_id'], ['facturas.id'], name=op.f('fk_aplicaciones_pago_factura_id_facturas')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_aplicaciones_pago'))
    )
    op.create_index(op.f('ix_aplicaciones_pago_id'), 'aplicaciones_pago', ['id'], unique=False)
    op.create_index(op.f('ix_aplicaciones_pago_pago_id'), 'aplicaciones_pago', ['pago_id'], unique=False)
    op.create_index(op.f('ix_aplicaciones_pago_factura_id'), 'aplicaciones_pago', ['factura_id'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', audit_action, nullable=False),
        sa.Column('resource_type', audit_resource, nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        *_common_columns(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_logs'))
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_user_id'), 'audit_logs', ['user_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_resource_id'), 'audit_logs', ['resource_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('audit_logs')
    op.drop_table('aplicaciones_pago')
    op.drop_table('pagos')
    op.drop_table('facturas')

    bind = op.get_bind()
    audit_resource.drop(bind, checkfirst=True)
    audit_action.drop(bind, checkfirst=True)
    forma_pago.drop(bind, checkfirst=True)
    factura_estado.drop(bind, checkfirst=True)
