"""
GraphQL mutation strings for Shopify Admin API.
"""


# Parents with at most this many variants are written with productSet(synchronous: true)
SYNC_TEMPLATE_MAX_VARIANTS = 100

# Rewrite a product's variants (options must be restated in full)
PRODUCT_SET_SYNC = '''
mutation productSetSync($input: ProductSetInput!) {
  productSet(synchronous: true, input: $input) {
    product {
      id
      title
      variants(first: 250) {
        nodes {
          id
          sku
          title
        }
      }
    }
    userErrors {
      field
      message
      code
    }
  }
}
'''

PRODUCT_SET_ASYNC = '''
mutation productSetAsync($input: ProductSetInput!) {
  productSet(synchronous: false, input: $input) {
    product {
      id
    }
    productSetOperation {
      id
      status
      userErrors {
        field
        message
        code
      }
    }
    userErrors {
      field
      message
      code
    }
  }
}
'''

# Step 1 of a staged upload: ask for a pre-signed target
STAGED_UPLOADS_CREATE = '''
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets {
      url
      resourceUrl
      parameters {
        name
        value
      }
    }
    userErrors {
      field
      message
    }
  }
}
'''

# Run a mutation once per line of an uploaded JSONL file
BULK_OPERATION_RUN_MUTATION = '''
mutation bulkOperationRunMutation($mutation: String!, $stagedUploadPath: String!) {
  bulkOperationRunMutation(mutation: $mutation, stagedUploadPath: $stagedUploadPath) {
    bulkOperation {
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
    }
    userErrors {
      field
      message
    }
  }
}
'''


def product_set_template(variant_count: int) -> str:
    """Pick the productSet mutation suited to a parent of this size."""
    if variant_count <= SYNC_TEMPLATE_MAX_VARIANTS:
        return PRODUCT_SET_SYNC
    return PRODUCT_SET_ASYNC
