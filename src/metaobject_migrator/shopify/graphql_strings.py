"""Canonical GraphQL query/mutation strings for Shopify Admin API."""

# Reference fragment shared by field reference/references selections
_REFERENCE_SELECTION = """
          __typename
          ... on Metaobject { id handle type }
          ... on Product { id handle }
          ... on Page { id handle }
          ... on ProductVariant { id sku product { handle } }
          ... on Collection { id handle }
          ... on MediaImage { id image { url } }
"""

_REFERENCER_SELECTION = """
            __typename
            ... on Product { id handle }
            ... on ProductVariant { id sku product { handle } }
            ... on Page { id handle }
            ... on Collection { id handle }
"""

# Export: metaobject listing with inline first page of referencedBy
QUERY_METAOBJECTS_PAGE = f"""
query MetaobjectsPage($type: String!, $first: Int!, $after: String) {{
  metaobjects(type: $type, first: $first, after: $after) {{
    pageInfo {{ hasNextPage endCursor }}
    nodes {{
      id
      handle
      type
      fields {{
        key
        type
        value
        jsonValue
        reference {{{_REFERENCE_SELECTION}        }}
        references(first: 25) {{
          nodes {{{_REFERENCE_SELECTION}          }}
        }}
      }}
      referencedBy(first: 10) {{
        pageInfo {{ hasNextPage endCursor }}
        edges {{
          node {{
            namespace
            key
            referencer {{{_REFERENCER_SELECTION}            }}
          }}
        }}
      }}
    }}
  }}
}}
"""

QUERY_METAOBJECT_REFERENCED_BY = f"""
query MetaobjectReferencedBy($id: ID!, $first: Int!, $after: String) {{
  metaobject(id: $id) {{
    referencedBy(first: $first, after: $after) {{
      pageInfo {{ hasNextPage endCursor }}
      edges {{
        node {{
          namespace
          key
          referencer {{{_REFERENCER_SELECTION}          }}
        }}
      }}
    }}
  }}
}}
"""

# Import: primary upsert keyed by (type, handle)
MUTATION_METAOBJECT_UPSERT = """
mutation UpsertMetaobject($handle: MetaobjectHandleInput!, $metaobject: MetaobjectUpsertInput!) {
  metaobjectUpsert(handle: $handle, metaobject: $metaobject) {
    metaobject { id handle type }
    userErrors { field message }
  }
}
"""

MUTATION_METAFIELDS_SET = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id key namespace ownerType value type }
    userErrors { field message }
  }
}
"""

MUTATION_FILE_CREATE = """
mutation FileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files {
      id
      fileStatus
      alt
      ... on MediaImage {
        id
        image { width height }
      }
    }
    userErrors { field message code }
  }
}
"""

# Bulk handle resolution
QUERY_METAOBJECT_IDS_BY_HANDLE = """
query MetaobjectIdsByHandle($type: String!, $first: Int!, $query: String!, $after: String) {
  metaobjects(type: $type, first: $first, query: $query, after: $after) {
    nodes { id handle }
    pageInfo { hasNextPage endCursor }
  }
}
"""

QUERY_PRODUCT_IDS_BY_HANDLE = """
query ProductIdsByHandle($first: Int!, $query: String!, $after: String) {
  products(first: $first, query: $query, after: $after) {
    nodes { id handle }
    pageInfo { hasNextPage endCursor }
  }
}
"""

QUERY_COLLECTION_IDS_BY_HANDLE = """
query CollectionIdsByHandle($first: Int!, $query: String!, $after: String) {
  collections(first: $first, query: $query, after: $after) {
    nodes { id handle }
    pageInfo { hasNextPage endCursor }
  }
}
"""

QUERY_PAGE_IDS_BY_HANDLE = """
query PageIdsByHandle($first: Int!, $query: String!, $after: String) {
  pages(first: $first, query: $query, after: $after) {
    nodes { id handle }
    pageInfo { hasNextPage endCursor }
  }
}
"""

QUERY_VARIANTS_FOR_PRODUCT = """
query VariantIdsByProductHandle($handle: String!) {
  productByIdentifier(identifier: { handle: $handle }) {
    id
    variants(first: 250) {
      nodes { id sku }
    }
  }
}
"""
