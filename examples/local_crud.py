from __future__ import annotations

import logging
import os
import uuid

import boto3

from facetdb_py import Entity, Schema, attribute, facets, primary


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def _schema(table_name: str) -> Schema:
    return Schema(
        service="notes",
        entity="note",
        table=table_name,
        attributes={
            "owner": attribute(required=True),
            "noteId": attribute(required=True),
            "body": attribute(),
        },
        indexes={"note": primary(facets("pk", "owner"), facets("sk", "noteId"))},
    )


def main() -> None:
    logging.basicConfig(level=logging.DEBUG)
    client = _client()
    table_name = f"facetdb_py_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        notes = Entity(_schema(table_name), client=client)

        notes.put(owner="ann", noteId="001", body="first").go()
        notes.put(owner="ann", noteId="010", body="second").go()
        notes.put(owner="ann", noteId="100", body="third").go()

        print("get:", notes.get(owner="ann", noteId="010").go())
        print("params:", notes.query("note")(owner="ann").begins(noteId="0").params())

        page = notes.query("note")(owner="ann").begins(noteId="0").go()
        print("query begins noteId='0':", page.data)
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
