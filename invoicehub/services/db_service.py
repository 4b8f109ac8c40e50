"""Async database service for documents, customers, products, users and settings"""

from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy import select, update, delete
from sqlalchemy.orm import defer
import json
import logging

from invoicehub.errors import DatabaseMissingError, ReminderColumnMissingError
from invoicehub.models.database import AsyncSessionLocal
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import Customer as CustomerPydantic, User as UserPydantic
from invoicehub.models.document import (
    CompanyTag,
    Document as DocumentPydantic,
    DocumentPatch,
    Product as ProductPydantic,
)
from invoicehub.models.db_models import (
    Document as DocumentDB,
    Customer as CustomerDB,
    Product as ProductDB,
    User as UserDB,
    AppSettingsRecord,
)
from invoicehub.models.db_utils import (
    pydantic_to_db_document,
    db_to_pydantic_document,
    document_patch_to_columns,
    pydantic_to_db_customer,
    db_to_pydantic_customer,
    pydantic_to_db_product,
    db_to_pydantic_product,
    db_to_pydantic_user,
)

logger = logging.getLogger(__name__)

SETTINGS_KEY = "global_settings"
LOGO_KEY_PREFIX = "company_logo_"


def _classify_db_error(error: Exception, reminder_fields: bool = False) -> Optional[Exception]:
    """
    Map a driver error onto the store's distinguishable conditions.

    Returns the domain error to raise, or None when the error is not a
    schema problem and should propagate as-is.
    """
    if not isinstance(error, (OperationalError, ProgrammingError)):
        return None
    message = str(error).lower()
    if "no such table" in message or ("relation" in message and "does not exist" in message):
        return DatabaseMissingError(original_error=error)
    column_missing = "no such column" in message or "has no column" in message or (
        "column" in message and "does not exist" in message
    )
    if column_missing and (reminder_fields or "last_reminder_sent" in message or "reminder_count" in message):
        return ReminderColumnMissingError(original_error=error)
    return None


def _open_session(db: Optional[AsyncSession]) -> Tuple[AsyncSession, bool]:
    if db:
        return db, False
    return AsyncSessionLocal(), True


async def _fetch_documents(session: AsyncSession, query) -> List[DocumentDB]:
    """
    Run a document SELECT, retrying without the reminder columns when the
    store lacks them so that reads keep working on an older schema.
    """
    try:
        result = await session.execute(query)
        return list(result.scalars().all())
    except (OperationalError, ProgrammingError) as e:
        if not isinstance(_classify_db_error(e), ReminderColumnMissingError):
            raise
        await session.rollback()
        logger.warning(f"Reminder columns missing; reading documents without them: {e}")
        result = await session.execute(query.options(
            defer(DocumentDB.last_reminder_sent, raiseload=True),
            defer(DocumentDB.reminder_count, raiseload=True),
        ))
        return list(result.scalars().all())


class DatabaseService:
    """Async service for database operations"""

    # --- Documents ---

    @staticmethod
    async def save_document(
        document: DocumentPydantic,
        db: Optional[AsyncSession] = None
    ) -> DocumentPydantic:
        """
        Save document to database (create or full update)

        Args:
            document: Pydantic Document model
            db: Async database session (optional, creates new if not provided)

        Returns:
            The stored document
        """
        session, should_close = _open_session(db)

        try:
            result = await session.execute(
                select(DocumentDB).where(DocumentDB.id == document.id)
            )
            existing = result.scalar_one_or_none()
            db_document = pydantic_to_db_document(document)

            if existing:
                logger.info(f"Updating existing document: {document.id} ({document.number})")
                for key, value in db_document.__dict__.items():
                    if not key.startswith('_') and key not in ('id', 'created_at'):
                        setattr(existing, key, value)
                existing.updated_at = datetime.utcnow()
                db_document = existing
            else:
                logger.info(f"Creating new document: {document.id} ({document.number})")
                session.add(db_document)

            await session.commit()
            await session.refresh(db_document)
            return db_to_pydantic_document(db_document)

        except (OperationalError, ProgrammingError) as e:
            await session.rollback()
            logger.error(f"Error saving document {document.id}: {e}", exc_info=True)
            mapped = _classify_db_error(e)
            if mapped:
                raise mapped from e
            raise
        except Exception as e:
            await session.rollback()
            logger.error(f"Error saving document {document.id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def get_document(
        document_id: str,
        db: Optional[AsyncSession] = None
    ) -> Optional[DocumentPydantic]:
        """
        Get document from database

        Returns:
            Pydantic Document model or None if not found
        """
        session, should_close = _open_session(db)

        try:
            found = await _fetch_documents(
                session, select(DocumentDB).where(DocumentDB.id == document_id)
            )

            if found:
                return db_to_pydantic_document(found[0])
            return None

        except (OperationalError, ProgrammingError) as e:
            logger.error(f"Error getting document {document_id}: {e}", exc_info=True)
            mapped = _classify_db_error(e)
            if mapped:
                raise mapped from e
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def list_documents(
        skip: int = 0,
        limit: int = 500,
        document_type: Optional[str] = None,
        status: Optional[str] = None,
        db: Optional[AsyncSession] = None
    ) -> List[DocumentPydantic]:
        """
        List documents, newest issue date first

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            document_type: Optional type filter ('invoice' / 'quote')
            status: Optional status filter
            db: Async database session (optional)
        """
        session, should_close = _open_session(db)

        try:
            query = select(DocumentDB)

            if document_type:
                query = query.where(DocumentDB.document_type == document_type)
            if status:
                query = query.where(DocumentDB.status == status)

            query = query.order_by(DocumentDB.date_issued.desc(), DocumentDB.created_at.desc())
            query = query.offset(skip).limit(limit)

            return [db_to_pydantic_document(d) for d in await _fetch_documents(session, query)]

        except (OperationalError, ProgrammingError) as e:
            logger.error(f"Error listing documents: {e}", exc_info=True)
            mapped = _classify_db_error(e)
            if mapped:
                raise mapped from e
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def update_document(
        document_id: str,
        patch: DocumentPatch,
        db: Optional[AsyncSession] = None
    ) -> bool:
        """
        Merge the explicitly set fields of ``patch`` into a stored document

        Returns:
            True if updated, False if not found (or the patch is empty)

        Raises:
            ReminderColumnMissingError: the store lacks a reminder column
                and the patch touches reminder fields
            DatabaseMissingError: the documents table does not exist
        """
        columns = document_patch_to_columns(patch)
        if not columns:
            return False

        session, should_close = _open_session(db)

        try:
            columns["updated_at"] = datetime.utcnow()
            result = await session.execute(
                update(DocumentDB).where(DocumentDB.id == document_id).values(**columns)
            )
            await session.commit()

            if result.rowcount == 0:
                logger.warning(f"Update for unknown document {document_id}")
                return False
            logger.info(f"Updated document {document_id}: {sorted(patch.changes())}")
            return True

        except (OperationalError, ProgrammingError) as e:
            await session.rollback()
            mapped = _classify_db_error(e, reminder_fields=patch.touches_reminder_fields())
            if isinstance(mapped, ReminderColumnMissingError):
                logger.warning(f"Reminder column missing while updating {document_id}: {e}")
                raise mapped from e
            logger.error(f"Error updating document {document_id}: {e}", exc_info=True)
            if mapped:
                raise mapped from e
            raise
        except Exception as e:
            await session.rollback()
            logger.error(f"Error updating document {document_id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def delete_document(
        document_id: str,
        db: Optional[AsyncSession] = None
    ) -> bool:
        """Hard delete. Returns False if the document did not exist."""
        session, should_close = _open_session(db)

        try:
            result = await session.execute(
                delete(DocumentDB).where(DocumentDB.id == document_id)
            )
            await session.commit()
            deleted = result.rowcount > 0
            if deleted:
                logger.info(f"Deleted document {document_id}")
            return deleted

        except Exception as e:
            await session.rollback()
            logger.error(f"Error deleting document {document_id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    # --- Customers ---

    @staticmethod
    async def save_customer(
        customer: CustomerPydantic,
        db: Optional[AsyncSession] = None
    ) -> CustomerPydantic:
        session, should_close = _open_session(db)

        try:
            existing = await session.get(CustomerDB, customer.id)
            db_customer = pydantic_to_db_customer(customer)

            if existing:
                for key, value in db_customer.__dict__.items():
                    if not key.startswith('_') and key not in ('id', 'created_at', 'created_by'):
                        setattr(existing, key, value)
                existing.updated_at = datetime.utcnow()
                db_customer = existing
            else:
                logger.info(f"Creating customer {customer.id} ({customer.name})")
                session.add(db_customer)

            await session.commit()
            await session.refresh(db_customer)
            return db_to_pydantic_customer(db_customer)

        except Exception as e:
            await session.rollback()
            logger.error(f"Error saving customer {customer.id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def get_customer(
        customer_id: str,
        db: Optional[AsyncSession] = None
    ) -> Optional[CustomerPydantic]:
        session, should_close = _open_session(db)

        try:
            db_customer = await session.get(CustomerDB, customer_id)
            return db_to_pydantic_customer(db_customer) if db_customer else None
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def list_customers(db: Optional[AsyncSession] = None) -> List[CustomerPydantic]:
        session, should_close = _open_session(db)

        try:
            result = await session.execute(select(CustomerDB).order_by(CustomerDB.name))
            return [db_to_pydantic_customer(c) for c in result.scalars().all()]
        except (OperationalError, ProgrammingError) as e:
            logger.error(f"Error listing customers: {e}", exc_info=True)
            mapped = _classify_db_error(e)
            if mapped:
                raise mapped from e
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def delete_customer(customer_id: str, db: Optional[AsyncSession] = None) -> bool:
        session, should_close = _open_session(db)

        try:
            result = await session.execute(delete(CustomerDB).where(CustomerDB.id == customer_id))
            await session.commit()
            return result.rowcount > 0
        except Exception as e:
            await session.rollback()
            logger.error(f"Error deleting customer {customer_id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    # --- Products ---

    @staticmethod
    async def save_product(
        product: ProductPydantic,
        db: Optional[AsyncSession] = None
    ) -> ProductPydantic:
        session, should_close = _open_session(db)

        try:
            db_product = await session.merge(pydantic_to_db_product(product))
            await session.commit()
            await session.refresh(db_product)
            return db_to_pydantic_product(db_product)
        except Exception as e:
            await session.rollback()
            logger.error(f"Error saving product {product.id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def list_products(db: Optional[AsyncSession] = None) -> List[ProductPydantic]:
        session, should_close = _open_session(db)

        try:
            result = await session.execute(select(ProductDB).order_by(ProductDB.name))
            return [db_to_pydantic_product(p) for p in result.scalars().all()]
        except (OperationalError, ProgrammingError) as e:
            logger.error(f"Error listing products: {e}", exc_info=True)
            mapped = _classify_db_error(e)
            if mapped:
                raise mapped from e
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def delete_product(product_id: str, db: Optional[AsyncSession] = None) -> bool:
        session, should_close = _open_session(db)

        try:
            result = await session.execute(delete(ProductDB).where(ProductDB.id == product_id))
            await session.commit()
            return result.rowcount > 0
        except Exception as e:
            await session.rollback()
            logger.error(f"Error deleting product {product_id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    # --- Users ---

    @staticmethod
    async def save_user(user: UserPydantic, db: Optional[AsyncSession] = None) -> UserPydantic:
        session, should_close = _open_session(db)

        try:
            await session.merge(UserDB(id=user.id, name=user.name, email=user.email, role=user.role.value))
            await session.commit()
            return user
        except Exception as e:
            await session.rollback()
            logger.error(f"Error saving user {user.id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def get_user(user_id: str, db: Optional[AsyncSession] = None) -> Optional[UserPydantic]:
        session, should_close = _open_session(db)

        try:
            return db_to_pydantic_user(await session.get(UserDB, user_id))
        finally:
            if should_close:
                await session.close()

    # --- Settings / logo (key-value blobs) ---

    @staticmethod
    async def _get_value(key: str, session: AsyncSession) -> Any:
        record = await session.get(AppSettingsRecord, key)
        if record is None:
            return None
        value = record.value
        return json.loads(value) if isinstance(value, str) and key == SETTINGS_KEY else value

    @staticmethod
    async def get_settings(db: Optional[AsyncSession] = None) -> Optional[AppSettings]:
        """Stored business settings, or None when never saved"""
        session, should_close = _open_session(db)

        try:
            value = await DatabaseService._get_value(SETTINGS_KEY, session)
            return AppSettings.model_validate(value) if value else None
        except (OperationalError, ProgrammingError) as e:
            mapped = _classify_db_error(e)
            if isinstance(mapped, DatabaseMissingError):
                logger.warning("app_settings table missing; using default settings")
                return None
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def save_settings(app_settings: AppSettings, db: Optional[AsyncSession] = None) -> AppSettings:
        """Replace the whole settings object"""
        session, should_close = _open_session(db)

        try:
            await session.merge(AppSettingsRecord(key=SETTINGS_KEY, value=app_settings.model_dump(mode="json")))
            await session.commit()
            logger.info("Saved global settings")
            return app_settings
        except Exception as e:
            await session.rollback()
            logger.error(f"Error saving settings: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def get_logo(company: CompanyTag, db: Optional[AsyncSession] = None) -> Optional[str]:
        """Uploaded logo for ``company`` as a data URL, if any"""
        session, should_close = _open_session(db)

        try:
            return await DatabaseService._get_value(f"{LOGO_KEY_PREFIX}{company.value}", session) or None
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def save_logo(company: CompanyTag, logo: str, db: Optional[AsyncSession] = None) -> None:
        session, should_close = _open_session(db)

        try:
            await session.merge(AppSettingsRecord(key=f"{LOGO_KEY_PREFIX}{company.value}", value=logo))
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Error saving logo: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()

    @staticmethod
    async def export_backup(db: Optional[AsyncSession] = None) -> Dict[str, Any]:
        """Products, documents, customers and logos as one JSON-safe dict"""
        products = await DatabaseService.list_products(db=db)
        documents = await DatabaseService.list_documents(limit=100000, db=db)
        customers = await DatabaseService.list_customers(db=db)
        logos = {tag.value: await DatabaseService.get_logo(tag, db=db) for tag in CompanyTag}
        return {
            "products": [p.model_dump(mode="json") for p in products],
            "documents": [d.model_dump(mode="json") for d in documents],
            "customers": [c.model_dump(mode="json") for c in customers],
            "logos": logos,
            "exportedAt": datetime.utcnow().isoformat(),
        }
