"""
GraphQL query strings for Shopify Admin API.
"""


_PRODUCT_FIELDS = '''
    id
    title
    vendor
    productType
    images(first: 1) {
      nodes {
        id
        url
        altText
      }
    }
    variants(first: 250) {
      nodes {
        id
        title
        sku
        selectedOptions {
          name
          value
        }
      }
    }
'''

# Paginated catalog read (scope "all")
PRODUCTS_PAGE_QUERY = f'''
query GetProductsPage($first: Int!, $after: String) {{
  products(first: $first, after: $after) {{
    nodes {{
      {_PRODUCT_FIELDS}
    }}
    pageInfo {{
      hasNextPage
      endCursor
    }}
  }}
}}
'''

# Catalog read for an explicit list of product ids
PRODUCTS_BY_IDS_QUERY = f'''
query GetSpecificProducts($ids: [ID!]!) {{
  nodes(ids: $ids) {{
    ... on Product {{
      {_PRODUCT_FIELDS}
    }}
  }}
}}
'''

_BULK_OPERATION_FIELDS = '''
    id
    status
    errorCode
    createdAt
    completedAt
    objectCount
    fileSize
    url
    partialDataUrl
    type
'''

# Query to poll a specific bulk operation
BULK_OPERATION_STATUS_QUERY = f'''
query GetBulkOperation($id: ID!) {{
  node(id: $id) {{
    ... on BulkOperation {{
      {_BULK_OPERATION_FIELDS}
    }}
  }}
}}
'''

# The operation currently outstanding for this shop, if any
CURRENT_BULK_OPERATION_QUERY = f'''
query GetCurrentBulkOperation {{
  currentBulkOperation(type: MUTATION) {{
    {_BULK_OPERATION_FIELDS}
  }}
}}
'''
