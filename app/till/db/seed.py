from sqlalchemy import select

from app.till.db.models import CashRegister, CashRegisterAssignment, Customer, Warehouse


DEMO_WAREHOUSE = ("PRINCIPAL", "Almacen principal")
DEMO_CUSTOMER = ("CF", "Consumidor final", "CONTADO")
DEMO_REGISTERS = [
    ("CAJA-01", "Caja principal"),
    ("CAJA-02", "Caja secundaria"),
]


def _get_or_create_warehouse(db):
    code, name = DEMO_WAREHOUSE
    warehouse = db.execute(select(Warehouse).where(Warehouse.code == code)).scalars().first()
    if warehouse:
        return warehouse
    warehouse = Warehouse(code=code, name=name)
    db.add(warehouse)
    db.flush()
    return warehouse


def _get_or_create_customer(db):
    code, name, payment_term = DEMO_CUSTOMER
    customer = db.execute(select(Customer).where(Customer.code == code)).scalars().first()
    if customer:
        return customer
    customer = Customer(code=code, name=name, payment_term_code=payment_term)
    db.add(customer)
    db.flush()
    return customer


def _get_or_create_registers(db, warehouse, customer):
    registers = []
    for code, name in DEMO_REGISTERS:
        register = db.execute(select(CashRegister).where(CashRegister.code == code)).scalars().first()
        if register is None:
            register = CashRegister(
                code=code,
                name=name,
                warehouse_id=warehouse.id,
                default_customer_id=customer.id,
            )
            db.add(register)
            db.flush()
        registers.append(register)
    return registers


def _assign_registers(db, registers, admin_user_ids):
    existing = {
        (row.admin_user_id, row.cash_register_id)
        for row in db.execute(select(CashRegisterAssignment)).scalars().all()
    }
    for admin_user_id in admin_user_ids:
        for position, register in enumerate(registers):
            if (admin_user_id, register.id) in existing:
                continue
            db.add(
                CashRegisterAssignment(
                    admin_user_id=admin_user_id,
                    cash_register_id=register.id,
                    is_default=position == 0,
                )
            )


def run_seed(db, admin_user_ids=(1,)):
    warehouse = _get_or_create_warehouse(db)
    customer = _get_or_create_customer(db)
    registers = _get_or_create_registers(db, warehouse, customer)
    _assign_registers(db, registers, admin_user_ids)
    db.commit()
