"""
Prefix declarations for the node's key-value database.

To store a particular type of data, the node reserves a key prefix and stores
every record of that type under a key that starts with it, the same way
Bitcoin Core partitions its LevelDB. This table is the single source of truth:
one `PrefixDeclaration` per logical collection, in a fixed order.

- `prefix_id` uses the JSON-array notation of the node's schema tags
  (``"[5]"``). ``""`` or ``"[]"`` reserves a name without a prefix (never
  scanned); ``"-"`` is forbidden.
- `flags` mark downstream relevance: ``CORE_STATE`` (consensus-critical
  replicated state), ``IS_STATE`` (mutable application state), ``IS_TXINDEX``
  (optional transaction index).
- `key_layout` documents the composite key that follows the prefix. The
  registry does not interpret it.

Tags 6, 13 and 24 are retired and must not be reused. NEXT_TAG: 80
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Tuple


class CollectionFlag(str, Enum):
    CORE_STATE = "core-state"
    IS_STATE = "is-state"
    IS_TXINDEX = "is-txindex"


CORE = CollectionFlag.CORE_STATE
STATE = CollectionFlag.IS_STATE
TXINDEX = CollectionFlag.IS_TXINDEX

NEXT_TAG = 80
RETIRED_TAGS = frozenset({6, 13, 24})


@dataclass(frozen=True)
class PrefixDeclaration:
    name: str
    prefix_id: str
    flags: FrozenSet[CollectionFlag] = field(default_factory=frozenset)
    key_layout: str = ""


def _d(name: str, prefix_id: str, *flags: CollectionFlag, key: str = "") -> PrefixDeclaration:
    return PrefixDeclaration(name, prefix_id, frozenset(flags), key)


DECLARATIONS: Tuple[PrefixDeclaration, ...] = (
    # Block index and block tree
    _d("PrefixBlockHashToBlock", "[0]", CORE, key="<BlockHash> -> MsgDeSoBlock"),
    _d("PrefixHeightHashToNodeInfo", "[1]", key="<height u32 BE, BlockHash> -> BlockNode"),
    _d("PrefixBitcoinHeightHashToNodeInfo", "[2]", key="<height u32 BE, BlockHash> -> BlockNode"),
    _d("PrefixBestDeSoBlockHash", "[3]", key="<> -> BlockHash"),
    _d("PrefixBestBitcoinHeaderHash", "[4]", key="<> -> BlockHash"),
    # UTXOs
    _d("PrefixUtxoKeyToUtxoEntry", "[5]", STATE, key="<txid BlockHash, index u64> -> UtxoEntry"),
    _d("PrefixPubKeyUtxoKey", "[7]", STATE, key="<pubKey [33], txid BlockHash, index u32> -> <>"),
    _d("PrefixUtxoNumEntries", "[8]", STATE, key="<> -> u64"),
    _d("PrefixBlockHashToUtxoOperations", "[9]", CORE, key="<BlockHash> -> [][]UtxoOperation"),
    # Bitcoin exchange
    _d("PrefixNanosPurchased", "[10]", STATE, key="<> -> u64"),
    _d("PrefixUSDCentsPerBitcoinExchangeRate", "[27]", STATE, key="<> -> u64"),
    _d("PrefixGlobalParams", "[40]", STATE, key="<key> -> GlobalParamsEntry"),
    _d("PrefixBitcoinBurnTxIDs", "[11]", STATE, key="<BitcoinTxID BlockHash> -> <>"),
    # Private messages
    _d(
        "PrefixPublicKeyTimestampToPrivateMessage", "[12]", STATE, CORE,
        key="<pubKey [33], tstamp u64 BE> -> MessageEntry",
    ),
    # Transaction index
    _d("PrefixTransactionIndexTip", "[14]", TXINDEX, key="<> -> BlockHash"),
    _d("PrefixTransactionIDToMetadata", "[15]", TXINDEX, key="<txid BlockHash> -> TransactionMetadata"),
    _d("PrefixPublicKeyIndexToTransactionIDs", "[16]", TXINDEX, key="<pubKey, index u32> -> txid"),
    _d("PrefixPublicKeyToNextIndex", "[42]", TXINDEX, key="<pubKey> -> index u32"),
    # Posts
    _d("PrefixPostHashToPostEntry", "[17]", STATE, CORE, key="<PostHash> -> PostEntry"),
    _d("PrefixPosterPublicKeyPostHash", "[18]", STATE, key="<pubKey [33], PostHash> -> <>"),
    _d("PrefixTstampNanosPostHash", "[19]", STATE, key="<tstampNanos u64, PostHash> -> <>"),
    _d("PrefixCreatorBpsPostHash", "[20]", STATE, key="<creatorBps u64, PostHash> -> <>"),
    _d("PrefixMultipleBpsPostHash", "[21]", STATE, key="<multipleBps u64, PostHash> -> <>"),
    _d(
        "PrefixCommentParentStakeIDToPostHash", "[22]", STATE,
        key="<parent StakeID [33], tstampNanos u64, PostHash> -> <>",
    ),
    # Profiles
    _d("PrefixPKIDToProfileEntry", "[23]", STATE, CORE, key="<PKID [33]> -> ProfileEntry"),
    _d("PrefixProfileUsernameToPKID", "[25]", STATE, key="<lowercase username> -> PKID"),
    _d("PrefixCreatorDeSoLockedNanosCreatorPKID", "[32]", STATE, key="<lockedNanos u64, PKID> -> <>"),
    _d(
        "PrefixStakeIDTypeAmountStakeIDIndex", "[26]", STATE,
        key="<StakeIDType, AmountNanos u64, StakeID> -> <>",
    ),
    # Follows
    _d(
        "PrefixFollowerPKIDToFollowedPKID", "[28]", STATE, CORE,
        key="<follower PKID [33], followed PKID [33]> -> <>",
    ),
    _d(
        "PrefixFollowedPKIDToFollowerPKID", "[29]", STATE,
        key="<followed PKID [33], follower PKID [33]> -> <>",
    ),
    # Likes
    _d(
        "PrefixLikerPubKeyToLikedPostHash", "[30]", STATE, CORE,
        key="<liker pubKey [33], PostHash [32]> -> <>",
    ),
    _d("PrefixLikedPostHashToLikerPubKey", "[31]", STATE, key="<PostHash [32], liker pubKey [33]> -> <>"),
    # Creator coins
    _d(
        "PrefixHODLerPKIDCreatorPKIDToBalanceEntry", "[33]", STATE,
        key="<HODLer PKID [33], creator PKID [33]> -> BalanceEntry",
    ),
    _d(
        "PrefixCreatorPKIDHODLerPKIDToBalanceEntry", "[34]", STATE, CORE,
        key="<creator PKID [33], HODLer PKID [33]> -> BalanceEntry",
    ),
    _d("PrefixPosterPublicKeyTimestampPostHash", "[35]", STATE, key="<pubKey [33], tstamp u64, PostHash> -> <>"),
    # PKIDs
    _d("PrefixPublicKeyToPKID", "[36]", STATE, CORE, key="<pubKey [33]> -> PKID [33]"),
    _d("PrefixPKIDToPublicKey", "[37]", STATE, key="<PKID [33]> -> pubKey [33]"),
    # Mempool persistence
    _d("PrefixMempoolTxnHashToMsgDeSoTxn", "[38]", key="<txn hash BlockHash> -> MsgDeSoTxn"),
    # Reposts and diamonds
    _d(
        "PrefixReposterPubKeyRepostedPostHashToRepostPostHash", "[39]", STATE,
        key="<reposter pubKey, reposted PostHash> -> RepostEntry",
    ),
    _d(
        "PrefixDiamondReceiverPKIDDiamondSenderPKIDPostHash", "[41]", STATE,
        key="<receiver PKID [33], sender PKID [33], PostHash> -> DiamondEntry",
    ),
    _d(
        "PrefixDiamondSenderPKIDDiamondReceiverPKIDPostHash", "[43]", STATE, CORE,
        key="<sender PKID [33], receiver PKID [33], PostHash> -> DiamondEntry",
    ),
    _d("PrefixForbiddenBlockSignaturePubKeys", "[44]", STATE, key="<pubKey [33]> -> <>"),
    _d("PrefixRepostedPostHashReposterPubKey", "[45]", STATE, key="<reposted PostHash, reposter pubKey> -> <>"),
    _d(
        "PrefixRepostedPostHashReposterPubKeyRepostPostHash", "[46]", STATE,
        key="<reposted PostHash, reposter pubKey, repost PostHash> -> <>",
    ),
    _d(
        "PrefixDiamondedPostHashDiamonderPKIDDiamondLevel", "[47]", STATE,
        key="<PostHash, diamonder PKID [33], level u64> -> <>",
    ),
    # NFTs
    _d(
        "PrefixPostHashSerialNumberToNFTEntry", "[48]", STATE, CORE,
        key="<NFT PostHash [32], serial u64> -> NFTEntry",
    ),
    _d(
        "PrefixPKIDIsForSaleBidAmountNanosPostHashSerialNumberToNFTEntry", "[49]", STATE,
        key="<PKID [33], isForSale bool, bidNanos u64, PostHash [32], serial u64> -> NFTEntry",
    ),
    _d(
        "PrefixPostHashSerialNumberBidNanosBidderPKID", "[50]", STATE, CORE,
        key="<PostHash [32], serial u64, bidNanos u64, bidder PKID [33]> -> <>",
    ),
    _d(
        "PrefixBidderPKIDPostHashSerialNumberToBidNanos", "[51]", STATE,
        key="<bidder PKID [33], PostHash [32], serial u64> -> bidNanos u64",
    ),
    # Balances and rewards
    _d("PrefixPublicKeyToDeSoBalanceNanos", "[52]", STATE, CORE, key="<pubKey [33]> -> u64"),
    _d(
        "PrefixPublicKeyBlockHashToBlockReward", "[53]", STATE,
        key="<BlockHash> -> <pubKey [33], blockRewardNanos u64>",
    ),
    _d(
        "PrefixPostHashSerialNumberToAcceptedBidEntries", "[54]", STATE,
        key="<PostHash [32], serial u64> -> []NFTBidEntry",
    ),
    # DAO coins
    _d(
        "PrefixHODLerPKIDCreatorPKIDToDAOCoinBalanceEntry", "[55]", STATE, CORE,
        key="<HODLer PKID [33], creator PKID [33]> -> BalanceEntry",
    ),
    _d(
        "PrefixCreatorPKIDHODLerPKIDToDAOCoinBalanceEntry", "[56]", STATE,
        key="<creator PKID [33], HODLer PKID [33]> -> BalanceEntry",
    ),
    # Messaging groups (legacy)
    _d(
        "PrefixMessagingGroupEntriesByOwnerPubKeyAndGroupKeyName", "[57]", STATE,
        key="<owner pubKey [33], groupKeyName [32]> -> MessagingGroupEntry",
    ),
    _d(
        "PrefixMessagingGroupMetadataByMemberPubKeyAndGroupMessagingPubKey", "[58]", STATE,
        key="<member pubKey [33], group messaging pubKey [33]> -> MessagingGroupEntry",
    ),
    # Derived keys
    _d(
        "PrefixAuthorizeDerivedKey", "[59]", STATE, CORE,
        key="<owner pubKey [33], derived pubKey [33]> -> DerivedKeyEntry",
    ),
    # DAO coin limit order book
    _d(
        "PrefixDAOCoinLimitOrder", "[60]", STATE, CORE,
        key="<buying PKID [33], selling PKID [33], rate [32], height [32], OrderID [32]> -> DAOCoinLimitOrderEntry",
    ),
    _d(
        "PrefixDAOCoinLimitOrderByTransactorPKID", "[61]", STATE,
        key="<transactor PKID [33], buying PKID [33], selling PKID [33], OrderID [32]> -> DAOCoinLimitOrderEntry",
    ),
    _d("PrefixDAOCoinLimitOrderByOrderID", "[62]", STATE, key="<OrderID [32]> -> DAOCoinLimitOrderEntry"),
    # User associations
    _d("PrefixUserAssociationByID", "[63]", STATE, CORE, key="<AssociationID [32]> -> UserAssociationEntry"),
    _d(
        "PrefixUserAssociationByTransactor", "[64]", STATE,
        key="<transactor PKID, type\\0, value\\0, target PKID, app PKID> -> AssociationID",
    ),
    _d(
        "PrefixUserAssociationByTargetUser", "[65]", STATE,
        key="<target PKID, type\\0, value\\0, transactor PKID, app PKID> -> AssociationID",
    ),
    _d(
        "PrefixUserAssociationByUsers", "[66]", STATE,
        key="<transactor PKID, target PKID, type\\0, value\\0, app PKID> -> AssociationID",
    ),
    # Post associations
    _d("PrefixPostAssociationByID", "[67]", STATE, CORE, key="<AssociationID [32]> -> PostAssociationEntry"),
    _d(
        "PrefixPostAssociationByTransactor", "[68]", STATE,
        key="<transactor PKID, type\\0, value\\0, PostHash, app PKID> -> AssociationID",
    ),
    _d(
        "PrefixPostAssociationByPost", "[69]", STATE,
        key="<PostHash, type\\0, value\\0, transactor PKID, app PKID> -> AssociationID",
    ),
    _d(
        "PrefixPostAssociationByType", "[70]", STATE,
        key="<type\\0, value\\0, PostHash, transactor PKID, app PKID> -> AssociationID",
    ),
    # Access groups and messages
    _d(
        "PrefixAccessGroupEntriesByAccessGroupId", "[71]", STATE, CORE,
        key="<owner pubKey [33], groupKeyName [32]> -> AccessGroupEntry",
    ),
    _d(
        "PrefixAccessGroupMembershipIndex", "[72]", STATE, CORE,
        key="<member pubKey [33], owner pubKey [33], groupKeyName [32]> -> AccessGroupMemberEntry",
    ),
    _d(
        "PrefixAccessGroupMemberEnumerationIndex", "[73]", STATE,
        key="<owner pubKey [33], groupKeyName [32], member pubKey [33]> -> AccessGroupMemberEnumerationEntry",
    ),
    _d(
        "PrefixGroupChatMessagesIndex", "[74]", STATE, CORE,
        key="<owner pubKey, groupKeyName, tstampNanos> -> NewMessageEntry",
    ),
    _d(
        "PrefixDmMessagesIndex", "[75]", STATE,
        key="<minor owner, minor keyName, major owner, major keyName, tstampNanos> -> NewMessageEntry",
    ),
    _d(
        "PrefixDmThreadIndex", "[76]", STATE,
        key="<user owner, user keyName, party owner, party keyName> -> DmThreadEntry",
    ),
    # Nonces
    _d("PrefixNoncePKIDIndex", "[77]", STATE, key="<expirationHeight, PKID, partialID> -> <>"),
    # Tracked by the state syncer for mempool transactions; not stored in the DB itself.
    _d("PrefixTxnHashToTxn", "[78]", CORE, key="<txnHash> -> MsgDeSoTxn"),
    _d("PrefixTxnHashToUtxoOps", "[79]", CORE, key="<txnHash> -> []UtxoOperation"),
)


__all__ = [
    "CollectionFlag",
    "PrefixDeclaration",
    "DECLARATIONS",
    "NEXT_TAG",
    "RETIRED_TAGS",
]
