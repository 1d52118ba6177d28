"""
Pytest configuration and fixtures.
"""
from pathlib import Path
import tempfile
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

from ledgerlens.config import get_settings
from ledgerlens.ledger_engine.keywords import KeywordTables, load_keyword_tables
from ledgerlens.main import app


@pytest.fixture(scope="function")
def client() -> Generator[TestClient, None, None]:
    """Create a test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def tables() -> KeywordTables:
    """Packaged keyword tables."""
    return load_keyword_tables()


@pytest.fixture
def trial_balance_lines() -> List[str]:
    """A small coded trial balance with headers and subtotals."""
    return [
        "EMPRESA EXEMPLO LTDA",
        "CNPJ: 12.345.678/0001-90",
        "Balancete de Verificação - Período: 01/01/2024 a 31/12/2024",
        "Código | Descrição | Saldo Anterior | Débito | Crédito | Saldo Atual",
        "1 | ATIVO | 0,00 | 15.000,00 | 5.000,00 | 10.000,00",
        "1.01 | Caixa | 0,00 | 10.000,00 | 4.000,00 | 6.000,00",
        "1.02 | Bancos | 0,00 | 5.000,00 | 1.000,00 | 4.000,00",
        "2 | PASSIVO | 0,00 | 1.000,00 | 11.000,00 | 10.000,00",
        "2.01 | Fornecedores | 0,00 | 1.000,00 | 11.000,00 | 10.000,00",
        "Página 1",
    ]


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset global singleton instances before each test for proper isolation."""
    import ledgerlens.ledger_engine.aggregation as aggregation_module
    import ledgerlens.ledger_engine.classifier as classifier_module
    import ledgerlens.ledger_engine.columns as columns_module
    import ledgerlens.ledger_engine.hierarchy as hierarchy_module
    import ledgerlens.ledger_engine.numbers as numbers_module

    aggregation_module._engine_instance = None
    classifier_module._classifier_instance = None
    columns_module._mapper_instance = None
    hierarchy_module._builder_instance = None
    numbers_module._parser_instance = None
    get_settings.cache_clear()

    yield

    aggregation_module._engine_instance = None
    classifier_module._classifier_instance = None
    columns_module._mapper_instance = None
    hierarchy_module._builder_instance = None
    numbers_module._parser_instance = None
    get_settings.cache_clear()
