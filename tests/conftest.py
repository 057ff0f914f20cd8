"""
Configuración base para tests de servicios e integración
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional

import httpx
import jwt
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from rentals.config import settings
from rentals.database import (
    build_engine, build_session_factory, create_async_db_and_tables, get_async_db
)
from rentals.main import app
from rentals.models.invoice import Invoice, InvoiceStatus
from rentals.models.payment import Payment, PaymentMethod


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Base de datos SQLite en archivo temporal; cada test parte de cero"""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rentals_test.db'}")
    await create_async_db_and_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sesión de base de datos para cada test"""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP de test con la sesión apuntando a la base temporal"""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def make_token(user_id: int, roles, email: str = "") -> str:
    payload = {"sub": str(user_id), "email": email, "roles": list(roles)}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def auth_headers_admin() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(1, ['ADMIN'], 'admin@test.com')}"}


@pytest.fixture
def auth_headers_oper() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(2, ['OPER'], 'operador@test.com')}"}


@pytest.fixture
def auth_headers_viewer() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(3, ['INQUILINO'], 'inquilino@test.com')}"}


@pytest.fixture
def make_invoice(db_session: AsyncSession):
    """Crea una factura confirmada y devuelve su ID"""
    async def _make(
        monto_total: str = "1000.00",
        saldo_pendiente: Optional[str] = None,
        estado: InvoiceStatus = InvoiceStatus.ABIERTA,
        fecha_vencimiento: Optional[date] = None,
        contrato_id: int = 10
    ) -> int:
        invoice = Invoice(
            contrato_id=contrato_id,
            numero_factura=f"F-{contrato_id}-{monto_total}",
            anio_periodo=2026,
            mes_periodo=10,
            fecha_emision=date(2026, 10, 1),
            fecha_vencimiento=fecha_vencimiento or date.today() + timedelta(days=10),
            monto_total=Decimal(monto_total),
            saldo_pendiente=Decimal(saldo_pendiente if saldo_pendiente is not None else monto_total),
            estado=estado
        )
        db_session.add(invoice)
        await db_session.commit()
        return invoice.id
    return _make


@pytest.fixture
def make_payment(db_session: AsyncSession):
    """Crea un pago confirmado y devuelve su ID"""
    async def _make(
        monto: str = "1000.00",
        saldo_no_aplicado: Optional[str] = None,
        contrato_id: int = 10
    ) -> int:
        payment = Payment(
            contrato_id=contrato_id,
            forma_pago=PaymentMethod.TRANSFERENCIA,
            fecha_pago=date(2026, 10, 5),
            referencia="TRX-001",
            monto=Decimal(monto),
            saldo_no_aplicado=Decimal(saldo_no_aplicado if saldo_no_aplicado is not None else monto)
        )
        db_session.add(payment)
        await db_session.commit()
        return payment.id
    return _make


@pytest.fixture
def fetch(db_session: AsyncSession):
    """
    Lee el estado vigente de una fila y cierra la transacción de lectura.

    En SQLite cada transacción toma el lock de escritura, por eso se confirma
    enseguida para no bloquear a otras sesiones.
    """
    async def _fetch(model, pk: int):
        result = await db_session.execute(
            select(model).where(model.id == pk).execution_options(populate_existing=True)
        )
        obj = result.scalar_one_or_none()
        await db_session.commit()
        return obj
    return _fetch


@pytest.fixture
def count_rows(db_session: AsyncSession):
    """Cuenta filas de un modelo con filtros opcionales"""
    async def _count(model, *conditions) -> int:
        result = await db_session.execute(select(func.count(model.id)).where(*conditions))
        total = result.scalar_one()
        await db_session.commit()
        return total
    return _count
