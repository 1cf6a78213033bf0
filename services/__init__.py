"""
AWS service adapters behind the normalized cloud client contract.

Each adapter maps "<service>.<verb>" requests onto boto3 calls and
normalizes SDK failures into CloudError. The Dispatcher routes requests
to the right adapter.
"""
