"""Contract tests for the schema and table list resources."""

import json

import pytest

from pg_readonly_mcp.lib.tools.schema import get_schema, list_table_names


class TestSchemaResourceContract:
    """Contract tests for postgres://schema."""

    @pytest.mark.asyncio
    async def test_schema_descriptor(self, mock_executor, result_factory):
        """Test the SchemaDescriptor payload."""
        mock_executor.execute.return_value = result_factory([
            {
                'schema_name': 'public',
                'table_name': 'orders',
                'columns': [
                    {'name': 'id', 'type': 'integer', 'nullable': False},
                    {'name': 'note', 'type': 'text', 'nullable': True},
                ]
            },
            {
                'schema_name': 'sales',
                'table_name': 'regions',
                'columns': json.dumps([{'name': 'code', 'type': 'character varying', 'nullable': False}])
            },
        ])

        result = await get_schema(mock_executor)

        assert result == {
            'tables': [
                {
                    'schema_name': 'public',
                    'name': 'orders',
                    'columns': [
                        {'name': 'id', 'type': 'integer', 'nullable': False},
                        {'name': 'note', 'type': 'text', 'nullable': True},
                    ]
                },
                {
                    'schema_name': 'sales',
                    'name': 'regions',
                    'columns': [{'name': 'code', 'type': 'character varying', 'nullable': False}]
                },
            ]
        }

    @pytest.mark.asyncio
    async def test_empty_database(self, mock_executor, result_factory):
        """Test a database without user tables."""
        mock_executor.execute.return_value = result_factory([])
        assert await get_schema(mock_executor) == {'tables': []}


class TestTableListResourceContract:
    """Contract tests for postgres://tables."""

    @pytest.mark.asyncio
    async def test_qualified_names(self, mock_executor, result_factory):
        """Test that tables are listed as schema.table."""
        mock_executor.execute.return_value = result_factory([
            {'schema_name': 'public', 'table_name': 'orders'},
            {'schema_name': 'sales', 'table_name': 'regions'},
        ])

        assert await list_table_names(mock_executor) == ['public.orders', 'sales.regions']
