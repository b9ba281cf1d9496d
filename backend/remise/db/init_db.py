from remise.db.base import Base
from remise.db.session import engine
import remise.db.models  # noqa


def init_db():
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    init_db()
